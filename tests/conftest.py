"""Register fixture modules for the whole test suite."""

pytest_plugins = [
    "tests.fixtures.mocked_aws",
    "tests.fixtures.fastapi_client",
    "tests.fixtures.fake_store",
]
