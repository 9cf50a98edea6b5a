class BillingError(RuntimeError):
    pass


class SessionNotFound(BillingError):
    def __init__(self, session_id: int) -> None:
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class SessionNotActive(BillingError):
    def __init__(self, session_id: int) -> None:
        super().__init__(f"Session is not active: {session_id}")
        self.session_id = session_id


class PersistenceFailure(BillingError):
    pass
