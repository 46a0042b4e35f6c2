# src/controller/exceptions.py
class ControllerError(Exception):
    """Base exception for controller and host task errors"""
    pass


class ControllerNotStartedError(ControllerError):
    """Raised when an operation needs a controller that was never started"""
    pass
