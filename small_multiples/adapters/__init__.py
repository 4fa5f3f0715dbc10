from .normalize import coerce_measure_values, data_view_from_frame

__all__ = ["coerce_measure_values", "data_view_from_frame"]
