from __future__ import annotations

EXPECTED_SHAPE = """{
  "requestBody": {
    "content": {
      "application/json": {
        "schema": {
          "type": "object",
          "properties": {},
          "required": []
        }
      }
    }
  },
  "parameters": [
    {
      "name": "paramName",
      "in": "path",
      "schema": {
        "type": "string",
        "description": "Parameter description"
      },
      "required": true
    }
  ],
  "responses": {
    "200": {
      "description": "Successful response",
      "content": {
        "application/json": {
          "schema": {
            "type": "object",
            "properties": {},
            "required": [],
            "additionalProperties": false
          }
        }
      }
    }
  }
}"""

PROMPT_TEMPLATE = """
This is a Fastify route handler function. Generate an OpenAPI description of its
request (path parameters, query parameters, body) and of its responses.

Reply with a single JSON object and nothing else. It must have exactly this shape:

{shape}

Formatting rules:
1. Return only the JSON object, no prose and no Markdown fences
2. Use double quotes for every key and string
3. Do not leave trailing commas
4. Use 'type' instead of 'format'
5. Use 'additionalProperties: false' on object schemas
6. Use 'id' instead of '$id'

How to read the handler:
- Path parameters appear in the URL (:id or {{id}}) and as request.params.<name>
- Query parameters appear as request.query.<name>
- Body fields appear as request.body.<name>
- For each parameter give the exact name from the code, a data type and a short English description
- For responses, follow every return / reply.send and describe the returned structure,
  marking which fields are required
- If the handler checks request.headers.authorization, a guard or a token, the route needs
  authentication: include 401 (and 403 where returned) responses
- All descriptions must be in English

Route handler code:
{handler}
"""

ADMONITIONS = (
    "IMPORTANT: your previous reply could not be parsed. Reply with ONE valid JSON object only. "
    "No explanations, no code fences, double-quoted keys, no trailing commas.",
    "FINAL WARNING: the reply must start with '{' and end with '}' and be strict JSON "
    "that Python's json.loads accepts. Any other text makes the answer unusable.",
)


def build_prompt(handler_source: str) -> str:
    return PROMPT_TEMPLATE.format(shape=EXPECTED_SHAPE, handler=handler_source)


def prompt_for_attempt(base_prompt: str, attempt: int) -> str:
    """
    Prompt for the given zero-based attempt. Each failed attempt adds one
    more admonition; the last one repeats once the list runs out.
    """
    prompt = base_prompt
    for n in range(attempt):
        prompt = prompt + "\n\n" + ADMONITIONS[min(n, len(ADMONITIONS) - 1)]
    return prompt
