"""
Prompt templates for ad script generation.
"""

from shared.models.job import Job

SYSTEM_PROMPT = """You are an award-winning commercial director. You turn a product \
brief into a production-ready video advertisement script, scene by scene, with \
prompts optimized for AI video generation.

Respond with ONLY valid JSON matching this schema:

{
  "title": "string - catchy title for the ad",
  "total_duration": number - exact duration in seconds,
  "scenes": [
    {
      "scene_number": number - 1-based, contiguous,
      "start_time": number - seconds from start,
      "duration": number - scene length in seconds (exactly 5 or 10),
      "location": "string - e.g. 'INT. MODERN KITCHEN - DAY'",
      "action": "string - 2-3 sentences describing what happens",
      "shot_type": "string - e.g. wide_shot, medium_close_up, insert_shot",
      "camera_angle": "string - e.g. eye_level, low_angle, birds_eye",
      "camera_move": "string - e.g. static, dolly_in, tracking, drone_aerial",
      "lighting": "string - e.g. golden_hour, studio_lighting, backlit",
      "color_grade": "string - e.g. warm_tones, teal_orange, cinematic",
      "mood": "string - e.g. energetic, calm, luxurious",
      "visual_style": "string - e.g. cinematic, lifestyle, product_focused",
      "transition_in": "string - e.g. cut, fade, match_cut",
      "transition_out": "string - e.g. cut, fade, match_cut",
      "generation_prompt": "string - detailed video generation prompt, 150-300 characters"
    }
  ],
  "audio_spec": {
    "enable_audio": true,
    "music_mood": "string - e.g. upbeat, inspiring, dramatic",
    "music_style": "string - e.g. electronic, acoustic, orchestral"
  },
  "metadata": {
    "product_name": "string",
    "target_audience": "string",
    "call_to_action": "string",
    "keywords": ["string"]
  }
}

Rules:
- Scene durations must add up to total_duration.
- Vary shot types, angles and lighting between scenes; never repeat a shot.
- Each generation_prompt must stand on its own: subject, setting, camera, light, mood."""


def build_user_prompt(job: Job) -> str:
    """Creative direction plus hard constraints from the job request."""
    prompt = (
        f"Create a {job.duration}-second advertisement video script based on this creative direction:\n\n"
        f"{job.prompt}\n\n"
        f"**Aspect Ratio:** {job.aspect_ratio}"
    )
    if job.start_image_url:
        prompt += "\n**Starting Image:** provided (the first scene should open on it)"
    if job.product_image_url:
        prompt += "\n**Product Image:** provided (the final scene should feature the product)"

    prompt += (
        "\n\n**Instructions:**\n"
        "- Extract product details, target audience, and brand vibe from the creative direction above\n"
        "- Generate varied scenes with different shot types, angles, and lighting\n"
        "- Derive appropriate music_mood and music_style from the content\n"
        "- Return ONLY valid JSON matching the schema, no markdown or explanations"
    )
    return prompt
