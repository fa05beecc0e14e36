import json
import logging
import os
import sys

from dotenv import load_dotenv

from lmp_pipeline.helpers.utils import to_json_safe
from lmp_pipeline.timeSeriesProcessing.normalization.timeNormalizer import load_raw_table
from lmp_pipeline.timeSeriesProcessing.pipeline import OutlierDetectionPipeline

load_dotenv()

#if __name__=='__main__':

logging.basicConfig(
    level=os.getenv("LMP_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(message)s",
)

input_path = sys.argv[1] if len(sys.argv) > 1 else os.getenv("LMP_INPUT_CSV")
if not input_path:
    sys.exit("Usage: python main.py <wide_daily_prices.csv> (or set LMP_INPUT_CSV)")

pipeline = OutlierDetectionPipeline.from_env()
result = pipeline.run(load_raw_table(input_path, pipeline.normalizer.date_column))

logging.info(f"Detected {len(result.outliers)} outlier(s) with cutoff {result.cutoff.upper:.6g}")
print(json.dumps(to_json_safe(result.summary()), indent=2))
print(result.outliers_frame().to_string(index=False))
