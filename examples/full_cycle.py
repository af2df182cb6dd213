"""
完整流程测试 - 单次运行
选择图片（或摄像头截图） -> 诊断 -> 输出结果

用法：
    python examples/full_cycle.py path/to/plant.jpg   # 上传图片
    python examples/full_cycle.py                     # 使用摄像头
"""
import asyncio
import sys
from pathlib import Path

# 添加项目根目录到 Python 路径
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from flora_vision.acquisition import AcquisitionStep, create_acquisition_machine


async def run(image_path=None):
    machine = create_acquisition_machine()
    machine.on_notice(lambda notice: print(f"[{notice.level.value}] {notice.title}: {notice.message}"))
    machine.subscribe(lambda state: print(f"  -> {state.step.value}"))

    try:
        if image_path:
            print(f"\n[1/2] 读取图片: {image_path}")
            await machine.choose_upload()
            state = await machine.file_selected(Path(image_path).read_bytes())
        else:
            print("\n[1/2] 打开摄像头...")
            state = await machine.choose_camera()
            if state.step is not AcquisitionStep.AWAITING_CAMERA:
                print("❌ 摄像头不可用")
                return
            print("\n[2/2] 截图并诊断...")
            state = await machine.capture()

        if state.step is AcquisitionStep.SUCCEEDED:
            result = state.result
            print("\n诊断结果:")
            print(f"  - 名称: {result.identification.common_name} ({result.identification.scientific_name})")
            print(f"  - 类别: {result.identification.category}")
            print(f"  - 健康: {'✓ 是' if result.diagnosis.is_healthy else '✗ 否'} - {result.diagnosis.health_description}")
            print(f"  - 用途: {result.care.benefits}")
            print(f"  - 浇水: {result.care.watering}")
            print(f"  - 光照: {result.care.sunlight}")
        else:
            print(f"\n❌ {state.error_message}")
    finally:
        machine.close()


if __name__ == "__main__":
    asyncio.run(run(sys.argv[1] if len(sys.argv) > 1 else None))
