"""OpsLink server listing backend."""
