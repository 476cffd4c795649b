"""On-device persistence: settings, reference samples, selection."""
