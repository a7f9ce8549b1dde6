"""
Compare-and-swap status updates

Every status change on listings, offers and invoices goes through
conditional_update(), an UPDATE ... WHERE id = :id AND status = :expected.
The caller owns the transition only when exactly one row changed.
"""


def conditional_update(model, record_id, expected_status, **values):
    """
    Args:
        model: db.Model class with id and status columns
        record_id: primary key
        expected_status: status (or tuple of statuses) the row must still have
        values: columns to set

    Returns:
        bool: True if this call performed the transition
    """
    query = model.query.filter(model.id == record_id)
    if isinstance(expected_status, (tuple, list)):
        query = query.filter(model.status.in_(expected_status))
    else:
        query = query.filter(model.status == expected_status)

    changed = query.update(values, synchronize_session=False)
    return changed == 1
