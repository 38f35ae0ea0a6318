"""Chain adapters. Only EVM chains are supported."""
