"""
Workflow module - session state and orchestration

This module provides:
- WorkflowSession / reduce: the immutable session and its state machine
- WorkflowController: sequencing of translate, verify, refine and voice calls
"""

from translatebridge.workflow.session import (
    FailureKind,
    WorkflowSession,
    WorkflowStatus,
    reduce,
)
from translatebridge.workflow.controller import WorkflowController
