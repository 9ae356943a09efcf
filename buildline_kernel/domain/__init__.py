"""Pure domain layer: values, workflow table, checklist schema, clock, DTOs."""
