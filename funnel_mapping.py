"""
Translation between persisted lead statuses and the sales funnel board stages.

Two one-way tables rather than one enum: the legacy booking statuses
(pending, confirmed, completed, cancelled) map forward only, so a round trip
through the board rewrites them to the modern vocabulary.
"""
FUNNEL_STAGES = ("new", "contacted", "qualified", "opportunity", "proposal", "customer", "lost")

DEFAULT_STATUS = "new"

# db status -> funnel stage
TO_FUNNEL = {
    "new": "new",
    "contacted": "contacted",
    "qualified": "qualified",
    "converted": "customer",
    "lost": "lost",
    # legacy booking statuses
    "pending": "new",
    "confirmed": "contacted",
    "completed": "qualified",
    "cancelled": "lost",
    # already in funnel vocabulary
    "opportunity": "opportunity",
    "proposal": "proposal",
    "customer": "customer",
}

# funnel stage -> db status
TO_DB = {
    "new": "new",
    "contacted": "contacted",
    "qualified": "qualified",
    "opportunity": "opportunity",
    "proposal": "proposal",
    "customer": "converted",
    "lost": "lost",
}


def _key(status):
    return str(status).strip().lower() if status is not None else ""


def to_funnel_status(db_status):
    return TO_FUNNEL.get(_key(db_status), DEFAULT_STATUS)


def to_db_status(funnel_status):
    return TO_DB.get(_key(funnel_status), DEFAULT_STATUS)


def _field(item, name):
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


def build_funnel_board(items):
    """Group leads under every funnel stage (empty stages included), input order kept"""
    board = {stage: [] for stage in FUNNEL_STAGES}
    for item in items or []:
        board[to_funnel_status(_field(item, "status"))].append(item)
    return board


def funnel_stats(board):
    all_items = [item for stage in FUNNEL_STAGES for item in board.get(stage, [])]

    # Leads that left the "new" column
    in_pipeline = sum(len(board.get(stage, [])) for stage in FUNNEL_STAGES if stage != "new")
    customers = board.get("customer", [])

    conversion_rate = round(len(customers) / in_pipeline * 100) if in_pipeline > 0 else 0

    def total_value(items):
        return sum(float(_field(item, "value") or 0) for item in items)

    service_distribution = {}
    for item in customers:
        service = _field(item, "service")
        if service:
            service_distribution[service] = service_distribution.get(service, 0) + 1

    return {
        "totalLeads": len(all_items),
        "conversionRate": conversion_rate,
        "potentialValue": total_value(all_items),
        "realizedValue": total_value(customers),
        "lostValue": total_value(board.get("lost", [])),
        "serviceDistribution": service_distribution,
    }
