"""
Stability AI text-to-image proxy (v1 generation API).
Caller parameters are clamped to the ranges the SDXL engines accept.
"""

from typing import Dict, List, Optional

import requests

from videomaker.errors import MissingCredentials, UpstreamError
from videomaker.models import ImageRequest
from videomaker.settings import Settings, settings as default_settings

# --- Defaults / bounds ---
DEFAULT_SIZE = 1024
MIN_SIZE, MAX_SIZE = 512, 1536
SIZE_MULTIPLE = 64
DEFAULT_STEPS, MIN_STEPS, MAX_STEPS = 30, 10, 50
DEFAULT_CFG, MIN_CFG, MAX_CFG = 7.0, 0.0, 35.0
DEFAULT_SAMPLES, MIN_SAMPLES, MAX_SAMPLES = 1, 1, 4


def _clamp(v, lo, hi, default):
    if v is None:
        return default
    return max(lo, min(hi, v))


def clamp_size(v: Optional[int]) -> int:
    n = int(_clamp(v, MIN_SIZE, MAX_SIZE, DEFAULT_SIZE))
    return max(MIN_SIZE, n - n % SIZE_MULTIPLE)


def build_params(req: ImageRequest) -> Dict:
    prompt = (req.prompt or "").strip()
    if not prompt:
        raise ValueError("PROMPT_REQUIRED")
    prompts = [{"text": prompt, "weight": 1}]
    if req.negative_prompt and req.negative_prompt.strip():
        prompts.append({"text": req.negative_prompt.strip(), "weight": -1})
    params = {
        "text_prompts": prompts,
        "width": clamp_size(req.width),
        "height": clamp_size(req.height),
        "steps": int(_clamp(req.steps, MIN_STEPS, MAX_STEPS, DEFAULT_STEPS)),
        "cfg_scale": float(_clamp(req.cfg_scale, MIN_CFG, MAX_CFG, DEFAULT_CFG)),
        "samples": int(_clamp(req.samples, MIN_SAMPLES, MAX_SAMPLES, DEFAULT_SAMPLES)),
    }
    if req.seed is not None:
        params["seed"] = max(0, int(req.seed))
    if req.style_preset:
        params["style_preset"] = req.style_preset
    return params


class StabilityAPI:
    def __init__(self, api_key: str, *, host: str, engine: str, timeout: float = 120.0):
        self.session = requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {api_key}",
            "Accept": "application/json",
        })
        self.host = host.rstrip("/")
        self.engine = engine
        self.timeout = timeout

    def text_to_image(self, params: Dict) -> List[Dict]:
        url = f"{self.host}/v1/generation/{self.engine}/text-to-image"
        try:
            r = self.session.post(url, json=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise UpstreamError(f"Image request failed: {e}", service="stability")
        try:
            data = r.json()
        except ValueError:
            data = r.text[:2000]
        if not r.ok:
            raise UpstreamError(
                f"Image generation failed: HTTP {r.status_code}",
                status_code=r.status_code,
                body=data,
                service="stability",
            )
        if not isinstance(data, dict):
            raise UpstreamError("Image generation returned a non-JSON body", status_code=r.status_code, body=data, service="stability")
        return [
            {
                "base64": a.get("base64"),
                "seed": a.get("seed"),
                "finish_reason": a.get("finishReason"),
            }
            for a in data.get("artifacts") or []
        ]


def generate_images(req: ImageRequest, cfg: Optional[Settings] = None) -> Dict:
    cfg = cfg or default_settings
    params = build_params(req)  # validates before anything leaves the process
    if not cfg.STABILITY_API_KEY:
        raise MissingCredentials("STABILITY_API_KEY")
    api = StabilityAPI(
        cfg.STABILITY_API_KEY,
        host=cfg.STABILITY_API_HOST,
        engine=cfg.STABILITY_ENGINE,
        timeout=cfg.UPSTREAM_TIMEOUT,
    )
    images = api.text_to_image(params)
    shown = {k: v for k, v in params.items() if k != "text_prompts"}
    return {"engine": cfg.STABILITY_ENGINE, "params": shown, "images": images}
