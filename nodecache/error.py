#    CLASS InvalidEntityKeyError
# ▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼

class InvalidEntityKeyError(RuntimeError):
    def __init__(self, offending_key: str, msg: str = None):
        if msg is None:
            # Set some default useful error message
            msg = f'Not a valid entity key: "{offending_key}"'
        super(InvalidEntityKeyError, self).__init__(msg)
        self.offending_key = offending_key


#    CLASS PolicyConflictError
# ▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼

class PolicyConflictError(RuntimeError):
    def __init__(self, typename: str, field_name: str, msg: str = None):
        if msg is None:
            msg = f'A field policy is already registered for {typename}.{field_name}'
        super(PolicyConflictError, self).__init__(msg)
        self.typename = typename
        self.field_name = field_name


class InvalidOperationError(RuntimeError):
    def __init__(self, operation_name: str = None):
        if not operation_name:
            msg = f'Invalid operation!'
        else:
            msg = f'Invalid operation: "{operation_name}"'
        super(InvalidOperationError, self).__init__(msg)
