from .prom import PrometheusExporter

__all__ = ['PrometheusExporter']
