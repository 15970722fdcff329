from rescue.models.setting import Setting

__all__ = ["Setting"]
