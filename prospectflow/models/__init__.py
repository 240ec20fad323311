from prospectflow.models.prospect import Prospect

__all__ = ["Prospect"]
