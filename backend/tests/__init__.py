"""
Test Suite

Structure:
    tests/
    ├── __init__.py
    ├── conftest.py         # Sample workflow, mongomock database, API client
    ├── unit/               # Engine, models, repositories, services
    └── integration/        # HTTP API through FastAPI's TestClient

To run tests:
    pytest tests/
    pytest tests/unit/
    pytest tests/integration/
"""
