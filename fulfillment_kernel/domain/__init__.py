"""Pure domain core: statuses, transition rules, officer choice, clock."""
