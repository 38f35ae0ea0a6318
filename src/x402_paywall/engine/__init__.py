"""Payment workflow engine: locks, status machine, error taxonomy and orchestration."""
