"""Item repository."""

from sqlmodel import Session, select

from src.identity_broker.entities.core._base import utc_now
from src.identity_broker.entities.service.item.entity import Item
from src.identity_broker.entities.service.item.table import ItemTable


class ItemRepository:
    """Data-access layer for items."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, item_id: int) -> Item | None:
        row = self._session.get(ItemTable, item_id)
        if row is None:
            return None
        return Item.model_validate(row, from_attributes=True)

    def exists(self, item_id: int) -> bool:
        return self._session.get(ItemTable, item_id) is not None

    def list_all(self) -> list[Item]:
        rows = self._session.exec(select(ItemTable).order_by(ItemTable.id)).all()
        return [Item.model_validate(row, from_attributes=True) for row in rows]

    def create(self, item: Item) -> Item:
        row = ItemTable(**item.model_dump(exclude={"id"}))
        self._session.add(row)
        self._session.flush()
        self._session.refresh(row)
        return Item.model_validate(row, from_attributes=True)

    def update(self, item: Item) -> Item:
        row = self._session.get(ItemTable, item.id)
        if row is None:
            raise ValueError(f"Item {item.id} not found")

        row.name = item.name
        row.description = item.description
        row.updated_at = utc_now()
        self._session.add(row)
        self._session.flush()
        self._session.refresh(row)
        return Item.model_validate(row, from_attributes=True)

    def delete(self, item_id: int) -> bool:
        row = self._session.get(ItemTable, item_id)
        if row is None:
            return False

        self._session.delete(row)
        self._session.flush()
        return True
