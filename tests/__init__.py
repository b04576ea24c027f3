"""
Flora console test suite

Tests are organized by layer:
- test_flora_client.py: HTTP client, auth and WordPress body parsing
- test_*_service.py: recipe, inventory and conversion service calls
- test_conversion_workflow.py: the two-phase wizard state machine
- test_*_routes.py: the JSON proxy and the session-backed wizard
"""
