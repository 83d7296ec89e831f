"""
Player and Country: the durable store of the leaderboard.
Schema only.
"""

from __future__ import annotations

from sqlalchemy import BigInteger, ForeignKey, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ranksync.core.database.base import Base, IdMixin


class Country(Base, IdMixin):
    __tablename__ = "countries"

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    players: Mapped[list["Player"]] = relationship(back_populates="country")

    def __repr__(self) -> str:
        return f"<Country id={self.id} name={self.name!r}>"


class Player(Base, IdMixin):
    """
    A scored player. Rows are only ever created, never deleted, so `id`
    grows monotonically and doubles as the delta-sync watermark.
    """

    __tablename__ = "players"
    __table_args__ = (
        Index("ix_players_money", "money"),
        Index("ix_players_country_money", "country_id", "money"),
        Index("ix_players_name", "name"),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    country_id: Mapped[int] = mapped_column(
        ForeignKey("countries.id"),
        nullable=False,
    )
    money: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
        server_default=text("0"),
    )

    country: Mapped[Country] = relationship(back_populates="players")

    def __repr__(self) -> str:
        return f"<Player id={self.id} name={self.name!r} money={self.money}>"
