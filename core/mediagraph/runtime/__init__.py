"""Workflow execution runtime: controller, engine, events and cancellation."""
