# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

import shlex


class Cmd(list[str]):
    """Builder for shell commands."""

    def append(self, token: str) -> "Cmd":
        "Adds a token to the command"
        super().append(token)
        return self

    def flag(self, key: str) -> "Cmd":
        """Adds a flag to the command"""
        return self.append(key)

    def arg(self, value: str, quote: bool = True) -> "Cmd":
        """Adds an argument value to the command"""
        return self.append(shlex.quote(value) if quote else value)

    def param(self, key: str, value: str, quote: bool = True) -> "Cmd":
        """Adds a key-value pair parameter"""
        return self.flag(key).arg(value, quote=quote)

    def __str__(self) -> str:
        return " ".join(self)


class AzCmd(Cmd):
    """Builder for Azure CLI commands."""

    def __init__(self, service: str, action: str):
        """Initialize with service and action (e.g., 'ad app', 'create')."""
        super().__init__(service.split() + action.split())

    def __str__(self) -> str:
        return "az " + super().__str__()

    def query(self, expression: str) -> "AzCmd":
        """Adds a JMESPath --query"""
        return self.param("--query", expression)

    def output(self, fmt: str = "json") -> "AzCmd":
        """Adds an --output format"""
        return self.param("--output", fmt)
