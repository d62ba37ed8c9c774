import contextvars

# Context variables for the current request
# This allows logs generated deep in the call stack to know which request/user they belong to
request_id_var = contextvars.ContextVar("request_id", default=None)
user_id_var = contextvars.ContextVar("user_id", default=None)
