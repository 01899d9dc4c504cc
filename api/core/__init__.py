"""
Shared, cross-cutting code for the API.

`core/` holds the small building blocks every resource uses (store adapters,
settings, CORS, the error envelope). Resource-specific configuration lives in
`resources/`.
"""
