from dotenv import load_dotenv

from fastapi import FastAPI

from scrum_agent.api.api_v1 import router as api_v1
from scrum_agent.core.lifespan import lifespan

load_dotenv()  # Load .env variables into os.environ for libraries (LangSmith, etc.)


app = FastAPI(lifespan=lifespan)


@app.get("/")
def root():
    return {"message": "Hello from scrum-agent!"}


app.include_router(api_v1, prefix="/api/v1")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
