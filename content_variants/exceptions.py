"""Exceptions raised by the variant stores.

The engine catches these and turns them into outcomes, they are not meant
to reach the HTTP layer.
"""


class IntegrityViolationError(Exception):
    """A content has more than one default variant."""

    def __init__(self, content_id: int, default_count: int):
        self.content_id = content_id
        self.default_count = default_count
        super().__init__(
            f"Content {content_id} has {default_count} default variants (expected exactly 1)"
        )


class AssignmentConflictError(Exception):
    """Someone else created the (user, content) assignment first."""

    def __init__(self, user_id: str, content_id: int):
        self.user_id = user_id
        self.content_id = content_id
        super().__init__(f"Assignment for user {user_id} on content {content_id} already exists")
