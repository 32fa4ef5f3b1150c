"""Pure domain layer: values, document aggregates, workflows, clocks."""
