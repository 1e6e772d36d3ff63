"""Integration tests for nodegc.

These tests wire the garbage collector to the real AWS and Kubernetes
adapters and clients, with only the boto3 EC2 client and the kubernetes API
objects replaced by mocks. They need no credentials or cluster.

Tests are marked with @pytest.mark.integration and can be run with:
    pytest tests/integration/ -m integration

To skip integration tests:
    pytest -m "not integration"
"""
