"""Pipeline orchestration and step state machine."""
