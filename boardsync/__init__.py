# Board state core: normalized store, move engine, filtering, dependencies, sync.
#
# Components:
#   schema.py       - Data model (BoardState, BoardList, Task, Label, ChecklistItem, ...)
#   errors.py       - ValidationError / SyncError / PermissionDeniedError
#   store.py        - Copy-on-write board store (single source of truth)
#   moves.py        - Drag-and-drop reorder commands and the move engine
#   filters.py      - Derived visible-task view (search, labels, members, due window)
#   dependencies.py - Task dependency edges and completion gating
#   sync.py         - BoardSession: optimistic commands, outbound push, inbound merge
#   channel.py      - In-process live channel with cancellable subscriptions
#   api.py          - HTTP fetch/push client
#   config.py       - YAML configuration and logging setup
