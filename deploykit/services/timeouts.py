from __future__ import annotations

# aws CLI calls (sts, ecr describe/create, get-login-password)
REGISTRY_TIMEOUT_SECONDS = 60.0

# docker login, tag, inspect, ps
DOCKER_TIMEOUT_SECONDS = 60.0

# Full image build from source
BUILD_TIMEOUT_SECONDS = 60 * 60.0

# Network-bound image transfers
PUSH_TIMEOUT_SECONDS = 30 * 60.0
PULL_TIMEOUT_SECONDS = 30 * 60.0

# docker-compose down/up/logs
COMPOSE_TIMEOUT_SECONDS = 10 * 60.0

# Local git operations (rev-parse)
GIT_TIMEOUT_SECONDS = 30.0
