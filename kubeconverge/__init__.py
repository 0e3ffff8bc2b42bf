"""
kubeconverge - Kubernetes Deployment Convergence Driver

Pushes resource objects onto a managed cluster through the control
plane's run-command channel and waits until the cluster reports them
stable.

Architecture:
- Each module is self-contained with clear interfaces
- Modules are completely replaceable
- No module knows the internals of another
- All communication through defined interfaces

Modules:
- api: Shared data models
- errors: Error taxonomy
- auth: Credentials for the control plane
- manifest: Manifest packaging into the transport archive
- dispatch: Command submission and operation polling
- sink: Captured command output persisted to files
- stability: Per-kind stability strategies
- coordinator: Concurrent stability checks
- cluster: Deploy / clean orchestration
"""

__version__ = "1.0.0"
