"""Read-only SQLAlchemy Core view of the OPERA tables used for guest sync.

Names are lowercase so the Oracle dialect treats them case-insensitively
(``OPERA.NAME_PHONE`` and friends).
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import Column, Date, DateTime, Integer, MetaData, String, Table


@dataclass(frozen=True, slots=True)
class OperaTables:
    metadata: MetaData
    name: Table
    name_phone: Table
    name_address: Table
    reservation_name: Table


def opera_tables(schema: str | None = "opera") -> OperaTables:
    metadata = MetaData(schema=schema.lower() if schema else None)
    name = Table(
        "name",
        metadata,
        Column("name_id", Integer, primary_key=True),
        Column("first", String(80)),
        Column("last", String(80)),
        Column("language", String(20)),
    )
    name_phone = Table(
        "name_phone",
        metadata,
        Column("phone_id", Integer, primary_key=True),
        Column("name_id", Integer, nullable=False),
        Column("phone_role", String(20)),
        Column("phone_number", String(200)),
        Column("primary_yn", String(1)),
        Column("insert_date", DateTime),
        Column("update_date", DateTime),
    )
    name_address = Table(
        "name_address",
        metadata,
        Column("address_id", Integer, primary_key=True),
        Column("name_id", Integer, nullable=False),
        Column("city", String(80)),
        Column("state", String(80)),
        Column("country", String(80)),
        Column("primary_yn", String(1)),
        Column("inactive_date", Date),
    )
    reservation_name = Table(
        "reservation_name",
        metadata,
        Column("resv_name_id", Integer, primary_key=True),
        Column("name_id", Integer, nullable=False),
        Column("resort", String(20)),
        Column("resv_status", String(20)),
        Column("begin_date", Date),
        Column("end_date", Date),
        Column("insert_date", DateTime),
        Column("update_date", DateTime),
    )
    return OperaTables(
        metadata=metadata,
        name=name,
        name_phone=name_phone,
        name_address=name_address,
        reservation_name=reservation_name,
    )
