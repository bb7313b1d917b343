"""Application layer – CQRS dispatch, request validation, response envelope, pagination, file checks."""
