"""
tvgrid Test Suite

Test Categories:
- unit/: Fast, isolated unit tests
- streaming/: Failover controller, slot grid and manifest engine
- integration/: HTTP loading and catalog service interactions
- e2e/: Full playlist-to-playback workflows
- fixtures/: Shared fakes
"""
