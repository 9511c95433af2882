import uuid


def new_id() -> str:
    """Primary keys in the hosted schema are UUID strings."""
    return str(uuid.uuid4())
