"""
通用工具类
"""
import os
import json
from pathlib import Path
from datetime import datetime
from dotenv import load_dotenv
from dataclasses import dataclass

# 项目根目录
BASE_DIR = Path(__file__).parent.parent

# 加载 .env 文件
load_dotenv(os.path.join(BASE_DIR, '.env'))


class Logger:
    """简单日志工具"""

    def __init__(self, log_dir=None):
        self.log_dir = Path(log_dir) if log_dir else None

    def log(self, module: str, level: str, message: str, **kwargs):
        """记录日志"""
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        log_entry = {
            "timestamp": timestamp,
            "module": module,
            "level": level,
            "message": message,
            **kwargs
        }

        # 输出到控制台
        print(f"[{timestamp}] [{module}] {level}: {message}")

        # 输出到文件（可选）
        if self.log_dir:
            log_file = self.log_dir / f"{datetime.now().strftime('%Y%m%d')}.log"
            try:
                self.log_dir.mkdir(parents=True, exist_ok=True)
                with open(log_file, "a", encoding="utf-8") as f:
                    f.write(json.dumps(log_entry, ensure_ascii=False, default=str) + "\n")
            except OSError as e:
                print(f"写入日志失败: {e}")


@dataclass
class DiagnosisConfig:
    """诊断服务配置（OpenAI 兼容接口，默认 Gemini）"""
    api_key: str
    base_url: str = "https://generativelanguage.googleapis.com/v1beta/openai"
    model: str = "gemini-2.0-flash"
    timeout: int = 60
    temperature: float = 0.3  # 降低随机性
    language: str = "Bahasa Indonesia"  # 生成内容的语言


@dataclass
class CameraConfig:
    """摄像头配置"""
    camera_index: int = 0
    resolution: tuple = (1280, 720)  # 目标分辨率
    warmup_frames: int = 2  # 截图前丢弃的缓冲帧
    image_format: str = "png"


DEFAULT_DESCRIPTION = "An image of a plant."


class Config:
    """全局配置类"""

    def __init__(self):
        # 诊断服务配置
        self.diagnosis = DiagnosisConfig(
            api_key=os.getenv("GEMINI_API_KEY", ""),
            base_url=os.getenv("DIAGNOSIS_BASE_URL",
                               "https://generativelanguage.googleapis.com/v1beta/openai"),
            model=os.getenv("DIAGNOSIS_MODEL", "gemini-2.0-flash"),
            timeout=int(os.getenv("DIAGNOSIS_TIMEOUT", "60")),
            language=os.getenv("DIAGNOSIS_LANGUAGE", "Bahasa Indonesia")
        )

        # 摄像头配置
        self.camera = CameraConfig(
            camera_index=int(os.getenv("CAMERA_INDEX", "0")),
            resolution=tuple(map(int, os.getenv("RESOLUTION", "1280,720").split(",")))
        )

        # 请求附带的默认描述
        self.description = os.getenv("DIAGNOSIS_DESCRIPTION", DEFAULT_DESCRIPTION)

        # 日志目录（不在导入时创建，首次写日志时创建）
        self.log_dir = Path(os.getenv("LOG_DIR", str(BASE_DIR / "logs")))


# 全局配置实例
config = Config()
