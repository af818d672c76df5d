from api_schema_guard.schema import builders as s

Todo = s.object({
    "id": s.integer(),
    "title": s.string(),
    "done": s.boolean(),
    "due": s.optional(s.date()),
})

_openapi = {
    "GET": {
        "method": "GET",
        "summary": "List todos",
        "tags": ["todos"],
        "query": s.optional(s.object({
            "search": s.optional(s.string()),
            "limit": s.optional(s.integer(), 20),
        })),
        "queryParams": {
            "search": {"description": "Full-text filter", "example": "milk"},
        },
        "responses": {
            200: {"description": "All todos", "schema": s.array(Todo)},
        },
    },
    "POST": {
        "method": "POST",
        "summary": "Create a todo",
        "operationId": "createTodo",
        "body": s.object({"title": s.string(), "internal": s.never()}),
        "responses": {
            "201": {"description": "Created", "schema": Todo},
        },
    },
}
