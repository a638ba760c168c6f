# Marks `maintdesk.deps` as a real package so `from maintdesk.deps.actor import current_actor` works.
