"""Collection subscriptions: read access to public collections of other households."""

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models import Collection, CollectionSubscription
from .exceptions import AccessDenied, NotFound


def is_subscribed(db: Session, household_id: int, collection_id: int) -> bool:
    return db.get(CollectionSubscription, (household_id, collection_id)) is not None


def subscribe(db: Session, household_id: int, collection_id: int) -> bool:
    """Subscribe to a public collection. Returns False if already subscribed."""
    collection = db.get(Collection, collection_id)
    if collection is None:
        raise NotFound("collections", collection_id)
    if collection.household_id == household_id:
        raise AccessDenied("Cannot subscribe to your own collection")
    if not collection.public:
        raise AccessDenied("Cannot subscribe to private collection")

    if is_subscribed(db, household_id, collection_id):
        return False

    db.add(CollectionSubscription(household_id=household_id, collection_id=collection_id))
    db.flush()
    return True


def unsubscribe(db: Session, household_id: int, collection_id: int) -> bool:
    """Returns False if the household was not subscribed."""
    subscription = db.get(CollectionSubscription, (household_id, collection_id))
    if subscription is None:
        return False
    db.delete(subscription)
    db.flush()
    return True


def subscribed_collection_ids(db: Session, household_id: int) -> list[int]:
    return list(
        db.scalars(
            select(CollectionSubscription.collection_id).where(
                CollectionSubscription.household_id == household_id
            )
        )
    )
