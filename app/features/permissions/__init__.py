"""
Permission management feature module.

Role-based access control: users hold roles, roles hold (resource, actions,
conditions) entries, and conditions (ownership, state, type) are evaluated
against the target entity at check time.
"""
