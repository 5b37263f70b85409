"""Workspace provisioning for local repository setup.

This module produces the working directory later operations act on:
- The source directory itself when the process can write to it
- A uniquely named copy under the scratch root otherwise
"""
