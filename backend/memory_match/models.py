from datetime import datetime, timezone

from memory_match import db


def _utcnow():
    return datetime.now(timezone.utc)


class StoredValue(db.Model):
    """Opaque persistent key-value entry (last player name, best score JSON)."""
    __tablename__ = 'stored_value'
    key = db.Column(db.String(64), primary_key=True)
    value = db.Column(db.Text, nullable=True)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    @classmethod
    def get_value(cls, key):
        entry = db.session.get(cls, key)
        return entry.value if entry else None

    @classmethod
    def set_value(cls, key, value):
        entry = db.session.get(cls, key)
        if entry is None:
            entry = cls(key=key)
        entry.value = value
        db.session.add(entry)
        db.session.commit()
        return entry

    @classmethod
    def delete_value(cls, key):
        entry = db.session.get(cls, key)
        if entry is not None:
            db.session.delete(entry)
            db.session.commit()
