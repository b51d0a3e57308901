import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.config import settings
from core.lifespan import lifespan
from routers import market, nft, onchain
from routers.auth import user_general
from routers.invest import account, trade

app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL], # 교차-출처 요청을 보낼 수 있는 출처의 리스트
    allow_credentials=True, # 교차-출처 요청시 쿠키 지원 여부를 설정
    allow_methods=["*"], # 교차-출처 요청을 허용하는 HTTP 메소드의 리스트
    allow_headers=["*"], # 교차-출처를 지원하는 HTTP 요청 헤더의 리스트
)

# 라우터 연결
app.include_router(user_general.router)
app.include_router(account.router)
app.include_router(trade.router)
app.include_router(market.router)
app.include_router(nft.router)
app.include_router(onchain.router)

@app.get("/")
def read_root():
    return {"message": "Coin Hub API"}

if __name__ == "__main__":
    uvicorn.run("main:app",
                host="localhost",
                port=8000,
                reload=True)
