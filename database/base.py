class DatabaseError(RuntimeError):
    pass
