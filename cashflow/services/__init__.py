"""Services package: local storage and remote sync."""
