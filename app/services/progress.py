"""
Genel ilerleme (0-100) haritası:
  0-15   hazırlık (index, görev oluşturma)
  15-70  sağlayıcıda indeksleme
  70-75  devir
  75-100 sonuçların toplanması
"""
import math

PROGRESS_QUEUED = 0
PROGRESS_STARTED = 5
PROGRESS_INDEX_READY = 10
PROGRESS_TASK_CREATED = 15
PROGRESS_INDEXED = 70
PROGRESS_HARVEST = 75
PROGRESS_DONE = 100

_INDEXING_SPAN = PROGRESS_INDEXED - PROGRESS_TASK_CREATED  # 55 puan


def map_indexing_progress(percentage: float | int | None) -> int:
    """Sağlayıcının 0-100 yüzdesini 15-70 aralığına taşır: floor(15 + p * 0.55)."""
    p = min(max(float(percentage or 0), 0.0), 100.0)
    return PROGRESS_TASK_CREATED + int(math.floor(p * _INDEXING_SPAN / 100))


def advance(current: int | None, new: int) -> int:
    """İşlenirken ilerleme geri gitmez."""
    return max(current or 0, new)
