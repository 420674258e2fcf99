"""
失败分类：各组件把异常转换成这些类型，再以结果值的形式向上报告。

只有 FormNotReadyFailure 会终止整次运行，其余都只降级为 partial。
"""

from __future__ import annotations


class ListerError(Exception):
    """所有自动填表失败的基类。"""

    code = "lister_error"


class ResolutionFailure(ListerError):
    code = "resolution_failure"


class SimulationFailure(ListerError):
    code = "simulation_failure"


class AssetFailure(ListerError):
    code = "asset_failure"


class UploadFailure(ListerError):
    code = "upload_failure"


class FormNotReadyFailure(ListerError):
    code = "form_not_ready"
